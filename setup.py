from setuptools import setup, find_packages

setup(
    name="ldResolver",
    version="0.1.0",
    description="Linked-Data resource resolver backed by a SPARQL endpoint",
    python_requires=">=3.10",
    packages=find_packages(include=["ldResolver", "ldResolver.*", "service", "service.*"]),
    install_requires=[
        "click>=8.0",
        "fastapi>=0.100.0",
        "httpx>=0.24.0",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "uvicorn>=0.22.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-socket>=0.6.0",
        ],
    },
    entry_points={
        "console_scripts": ["ldresolver=ldResolver.cli:main"],
    },
    license="MIT",
)
