from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="token-aggregator",
    version="0.1.0",
    author="Token Aggregator Team",
    description="Merged Solana token market data from DexScreener and Jupiter, served over HTTP and WebSocket",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["token_aggregator", "token_aggregator.*"]),
    include_package_data=True,
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn[standard]>=0.23.0",
        "pydantic>=2.0.0",
        "httpx>=0.24.0",
        "tenacity>=8.2.0",
        "redis>=5.0.1",
        "python-dotenv>=1.0.0",
        "apscheduler>=3.10.0,<4.0.0",
        "prometheus-client>=0.17.0",
        "click>=8.0.0",
        "rich>=10.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "isort>=5.10.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "token-aggregator=token_aggregator.cli:cli",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
    ],
    python_requires=">=3.9",
)
