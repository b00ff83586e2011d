from setuptools import setup, find_packages

setup(
    name="repair-tracker",
    version="0.3.0",
    packages=find_packages(include=["repair_tracker", "repair_tracker.*"]),
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.25",
        "tenacity>=8.2",
        "pydantic>=2.5",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
)
