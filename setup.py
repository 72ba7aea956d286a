"""Setup configuration for Mindbridge booking."""
from setuptools import setup, find_namespace_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="mindbridge-booking",
    version="1.0.0",
    author="Mindbridge",
    description="Payment settlement and appointment reconciliation for counselling bookings",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["mindbridge", "mindbridge.*", "scheduler"]),
    py_modules=["run_settlement_sweep"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "mindbridge=mindbridge.__main__:main",
            "mindbridge-sweep=run_settlement_sweep:main",
        ],
    },
)
