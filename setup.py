from setuptools import setup


setup(
    name="importflow",
    version="0.1.0",
    description="Import follow-up for procurement spreadsheets: urgency status, overrides and dashboard counts",
    packages=["importflow"],
    python_requires=">=3.10",
    install_requires=[
        "pandas<3",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
    },
    entry_points={
        "console_scripts": [
            "importflow=importflow.cli:main",
        ]
    },
)
