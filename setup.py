from setuptools import find_packages, setup

setup(
    name="treememberships",
    version="0.1.0",
    description="Row/column membership indexing for growing decision trees",
    packages=find_packages(include=["treememberships", "treememberships.*"]),
    python_requires=">=3.10",
    install_requires=["numpy", "torch"],
    extras_require={"test": ["pytest", "pandas"]},
)
