"""Setup script for code-smell-detector."""

from setuptools import setup, find_packages

setup(
    name="code-smell-detector",
    version="0.1.0",
    description="Code smell analysis, refactoring and follow-up chat backed by an LLM completion endpoint",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "httpx>=0.25",
        "structlog>=23.2",
        "opentelemetry-api>=1.21",
        "opentelemetry-sdk>=1.21",
        "click>=8.2",
        "rich>=13.7",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "hypothesis>=6.92",
        ],
    },
    entry_points={
        'console_scripts': [
            'smell-detector=api.cli:main',
        ],
    },
)
