"""
Setup script for scan-localization package.

This package provides 6-DoF localization against a prebuilt point-cloud map
by fusing IMU and odometry predictions with scan-to-map registration in
Unscented Kalman Filters.
"""

from setuptools import setup, find_packages
import os

# Read long description from README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(here, 'requirements.txt'), encoding='utf-8') as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Split core requirements from dev dependencies
core_requirements = []
dev_requirements = []

for req in requirements:
    if any(dev_pkg in req for dev_pkg in ['pytest', 'black', 'flake8', 'mypy', 'sphinx']):
        dev_requirements.append(req)
    else:
        core_requirements.append(req)

setup(
    name='scan-localization',
    version='1.0.0',
    description='Scan Matching Localization with IMU and Odometry Unscented Kalman Filters',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Scan Localization Team',

    packages=find_packages(where='src'),
    package_dir={'': 'src'},

    # Core dependencies
    install_requires=core_requirements,

    # Optional dependencies
    extras_require={
        'dev': dev_requirements,
        'test': dev_requirements,
    },

    python_requires='>=3.8',

    include_package_data=True,

    # Entry points for command line usage
    entry_points={
        'console_scripts': [
            'scan-localization-demo=scan_localization.main:main',
        ],
    },

    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Developers',
        'Topic :: Scientific/Engineering :: Mathematics',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],

    keywords='robotics localization unscented-kalman-filter scan-matching icp imu odometry lidar',
)
