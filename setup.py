from setuptools import setup


setup(
    name="obfusheet",
    version="0.1.0",
    description="Obfuscate spreadsheet values locally while keeping the workbook's structure",
    packages=["obfusheet"],
    install_requires=[
        "pandas",
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
            "obfusheet=obfusheet.cli:main",
        ]
    },
)
