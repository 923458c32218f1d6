from setuptools import setup, find_packages

setup(
    name="onboarding-assessments",
    version="0.1.0",
    packages=find_packages(include=["onboarding", "onboarding.*"]),
    install_requires=[
        "fastapi>=0.95.0,<0.110.0",
        "uvicorn>=0.15.0",
        "pydantic>=1.10.0,<2.0.0",
        "sqlalchemy>=1.4.0,<2.0.0",
        "alembic>=1.7.0",
        "python-dotenv>=0.19.0",
        "openai>=1.0.0",
        "aiosqlite>=0.17.0",
        "asyncpg>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.23.0,<0.28.0",
        ],
    },
    python_requires=">=3.8",
)
