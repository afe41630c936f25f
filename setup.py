from setuptools import setup


setup(
    name="csv-static-table",
    version="0.1.0",
    description="Load CSV files into buffer-backed tables, prune them and write them back",
    packages=["csv_static_table"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "csv-static-table=csv_static_table.cli:main",
        ]
    },
)
