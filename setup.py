from setuptools import setup, find_packages

setup(
    name="pacmap-digits-demo",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.26",
        "tqdm>=4.66",
        "matplotlib>=3.9",
        "plotly>=5.22",
        "requests>=2.31",
        "pacmap>=0.7",
    ],
    extras_require={
        "dev": ["pytest"],
    },
    python_requires=">=3.9",
    description="PaCMAP embedding of labeled digit datasets with interactive plotly scatter plots",
    entry_points={
        "console_scripts": [
            "pacmap-demo=scripts.pipeline:main",
        ],
    },
)
