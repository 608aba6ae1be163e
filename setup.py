from setuptools import setup, find_packages

setup(
    name="learnquest-assessments",
    version="0.1.0",
    description="Quiz and exam assessment engine for the LearnQuest learning platform",
    packages=find_packages(include=["learnquest", "learnquest.*"]),
    package_data={
        "learnquest": ["alembic/*.py", "alembic/*.mako", "alembic/versions/*.py"],
    },
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "alembic>=1.11.0",
        "aiosqlite>=0.19.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
        ],
    },
    python_requires=">=3.9",
)
