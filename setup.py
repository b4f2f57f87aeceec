from setuptools import setup, find_packages

setup(
    name="market_signal_engine",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    include_package_data=True,
    description="Market signal engine: indicators, opportunity scores and stabilized market regimes",
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.19.0",
        "pandas>=1.1.0",
        "requests>=2.25.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "market-signal-engine=main:main",
        ],
    },
)
