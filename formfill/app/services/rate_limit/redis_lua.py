"""Redis Lua script for the shared rate-limit counter.

Reading the counter, comparing it with the limit and incrementing it happen
inside one script, so two instances can never both read the same stale count
and both admit a request the window has no room for.
"""

# KEYS[1]  counter key
# ARGV[1]  max requests per window
# ARGV[2]  window length in milliseconds
#
# Returns {allowed (0|1), count, milliseconds until the window resets}.
# The key's TTL is the window: when it expires Redis drops the key and the
# next request opens a new window, so the clock is Redis' own.
CHECK_AND_CONSUME_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window_ms = tonumber(ARGV[2])

    if limit <= 0 then
        return {0, 0, window_ms}
    end

    local ttl = redis.call('PTTL', key)
    local current = tonumber(redis.call('GET', key)) or 0

    -- Missing key (-2) or a key that somehow lost its expiry (-1)
    if ttl < 0 then
        redis.call('SET', key, 1, 'PX', window_ms)
        return {1, 1, window_ms}
    end

    if current >= limit then
        return {0, current, ttl}
    end

    local count = redis.call('INCR', key)
    return {1, count, ttl}
"""
