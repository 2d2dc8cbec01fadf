from setuptools import setup, find_packages

setup(
    name="exprc",
    version="0.1.0",
    description="exprc: arithmetic expression to x86-64 stack-machine assembly compiler",
    packages=find_packages(include=["exprc", "exprc.*"]),
    python_requires=">=3.10",
    install_requires=[
        "llvmlite>=0.41.0",
        "z3-solver>=4.12.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "exprc=exprc.cli:main",
        ],
    },
)
