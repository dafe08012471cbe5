import os
from setuptools import setup, find_packages

setup(
    name="homewise-hardware",
    version="0.3.0",
    description="Homewise — detect GPU and host hardware capabilities",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Homewise",
    packages=find_packages(include=["homewise", "homewise.*"]),
    install_requires=[
        "psutil>=5.9.0",
        "click>=8.0.0",
    ],
    extras_require={
        "serve": [
            "fastapi>=0.100.0",
            "uvicorn[standard]>=0.20.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "fastapi>=0.100.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "fastapi>=0.100.0",
            "uvicorn[standard]>=0.20.0",
            "ruff>=0.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "homewise=homewise.cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
