from setuptools import setup, find_packages

setup(
    name="formfill-gateway",
    version="0.1.0",
    packages=find_packages(include=["formfill", "formfill.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.115",
        "uvicorn[standard]>=0.30",
        "pydantic>=2.7",
        "pydantic-settings>=2.7",
        "httpx>=0.27",
        "redis>=5.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
            "fakeredis[lua]>=2.20",
        ],
    },
)
