from setuptools import setup, find_packages

setup(
    name="nxt_lcp",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pyserial",
        "numpy",
    ],
)
