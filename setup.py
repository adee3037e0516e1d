from setuptools import setup, find_packages

setup(
    name="modmail-automator",
    version="1.0.0",
    package_dir={'': 'src'},
    packages=find_packages('src'),
    python_requires='>=3.9',
    install_requires=[
        'SQLAlchemy>=2.0.19',
        'python-dateutil>=2.8.2',
        'python-dotenv>=1.0.0',
        'pydantic>=2.6.1',
        'structlog>=23.1.0',
        'PyYAML>=6.0.1',
        'Babel>=2.12',
    ],
    extras_require={
        'test': ['pytest>=7.4'],
    },
    entry_points={
        'console_scripts': [
            'modmail-automator=modmail_automator.main:main',
        ],
    },
)
