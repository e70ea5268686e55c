"""
Setup file for minishare
Installs the campus marketplace service as an importable package
"""

from setuptools import setup, find_packages

setup(
    name="minishare",
    version="1.0.0",
    packages=find_packages(include=["minishare", "minishare.*"]),
    python_requires=">=3.9",
    install_requires=[
        'flask>=2.3.0',
        'flask-sqlalchemy>=3.1',
        'sqlalchemy>=2.0',
        'werkzeug>=2.3',
        'python-dotenv>=1.0',
        'python-json-logger>=2.0.7,<3',
    ],
    extras_require={
        'test': [
            'pytest>=7.4',
        ],
    },
)
