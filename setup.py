#!/usr/bin/env python3
"""
Setup script for the InfinitiFlow backend

Install with:
    pip install -e .

With test dependencies:
    pip install -e ".[test]"
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

# API server dependencies
requirements = [
    "fastapi>=0.110.0",
    "uvicorn[standard]>=0.27.0",
    "pydantic[email]>=2.6.0",
    "pydantic-settings>=2.1.0",
    "sqlalchemy[asyncio]>=2.0.25",
    "aiosqlite>=0.19.0",
    "asyncpg>=0.29.0",
    "python-jose[cryptography]>=3.3.0",
    "bcrypt>=4.1.0",
    "slowapi>=0.1.9",
    "redis>=5.0.0",
    "aiosmtplib>=3.0.0",
    "sendgrid>=6.11.0",
]

setup(
    name="infinitiflow",
    version="1.0.0",
    description="InfinitiFlow - AI content generator backend (accounts, subscriptions, content)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="InfinitiFlow Team",
    license="MIT",
    package_dir={"": "backend"},
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.26.0",
            "faker>=22.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    ],
    keywords="fastapi saas subscriptions content-generation jwt",
)
