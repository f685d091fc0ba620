"""Setup configuration for Steward Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="steward",
    version="0.1.0",
    description="A Discord community bot with persistent reminders and timed polls",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.12",
    install_requires=[
        "py-cord>=2.6",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "steward=steward.main:main",
        ],
    },
)
