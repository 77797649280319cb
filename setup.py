#!/usr/bin/env python3
"""
Setup script for TruDepth.
"""

from setuptools import setup, find_namespace_packages


# Read README for long description
def read_file(filename):
    with open(filename, 'r', encoding='utf-8') as f:
        return f.read()


# Read requirements
def read_requirements():
    with open('requirements.txt', 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]


setup(
    name='trudepth',
    version='0.2.0',
    description='Depth grid sampling and distance overlays for live depth-sensor frames',
    long_description=read_file('README.md'),
    long_description_content_type='text/markdown',
    author='TruDepth Contributors',
    author_email='',
    packages=find_namespace_packages(include=['src', 'src.*']),
    data_files=[('config', ['config/config.yaml'])],
    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.10',
    entry_points={
        'console_scripts': [
            'trudepth=src.main:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Image Processing',
    ],
    keywords='depth lidar augmented-reality computer-vision overlay',
    license='GPL-3.0-or-later',
)
