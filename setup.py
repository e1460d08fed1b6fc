from setuptools import setup, find_packages

setup(
    name="climb-intelligence",
    version="1.0.0",
    packages=find_packages(include=["climb_intelligence", "climb_intelligence.*"]),
    install_requires=[
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "fitparse>=1.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "climb-intel=climb_intelligence.cli:main",
        ],
    },
    python_requires=">=3.8",
)
