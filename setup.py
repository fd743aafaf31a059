from setuptools import setup, find_packages
import sys

assert sys.version_info >= (3, 7), (
    "Please use Python version 3.7 or higher, "
    "lower versions are not supported"
)

install_requires = [
    "numpy",
    "scipy",
    "scikit-learn",
]

extras = {
    "dev": [
        "pytest",
        "coverage",
        "flake8",
        "flake8-print",
    ],
}
extras["all"] = sum(extras.values(), [])


setup(
    name="mixmatrix",
    version="0.1.0",
    description="Classification and clustering with matrix variate normal "
                "and t distributions",
    license="Apache 2",
    packages=find_packages(exclude=["tests", "tests.*", "examples",
                                    "examples.*"]),
    python_requires=">=3.7",
    install_requires=install_requires,
    extras_require=extras,
)
