from setuptools import setup, find_packages

setup(
    name="lamikas-functions",
    version="0.1.0",
    packages=find_packages(include=["lamikas", "lamikas.*"]),
    python_requires=">=3.12",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "httpx>=0.26",
        "redis>=5.0",
        "nh3>=0.2.14",
        "phonenumbers>=8.13",
        "email-validator>=2.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.20",
        ],
    },
)
