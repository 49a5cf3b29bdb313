from setuptools import setup, find_packages
import os

# Read version
with open(os.path.join('prismaforge', 'VERSION'), 'r') as f:
    version = f.read().strip()

setup(
    name='prismaforge',
    version=version,
    description='Translate PostgreSQL DDL into a Prisma schema',
    packages=find_packages(include=['prismaforge', 'prismaforge.*']),
    include_package_data=True,
    install_requires=[
        'sqlparse>=0.4.4',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.8',
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    entry_points={
        'console_scripts': [
            'pf=prismaforge.main:main',
        ],
    },
    package_data={
        '': ['VERSION'],
    },
)
