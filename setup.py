#!/usr/bin/env python3

import setuptools


setuptools.setup(
    name='exercisetools',
    version='0.1.0',
    description='Grading harness for the coding exercises of interactive lessons',
    python_requires='>=3.12',
    packages=setuptools.find_packages(include=['exercisetools', 'exercisetools.*']),
    package_data={
        'exercisetools': ['config/*.yaml'],
    },
    install_requires=[
        'colorlog',
        'pydantic>=2',
        'PyYAML',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'gradeexercise=exercisetools.gradeexercise:main',
        ],
    },
)
