from setuptools import setup, find_packages

setup(
    name="mentormatch",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "alembic", "alembic.*"]),
    install_requires=[
        "fastapi<0.137",
        "uvicorn",
        "sqlalchemy>=2.0",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt<5",
        "pydantic[email]>=2",
        "pydantic-settings",
        "python-dotenv",
        "alembic"
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
