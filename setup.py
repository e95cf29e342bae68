"""
RCS Thermostat xPL Bridge Setup
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_path = Path(__file__).parent / 'README.md'
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding='utf-8')

setup(
    name='rcs_bridge',
    version='1.0.0',
    author='CRK',
    author_email='',
    description='xPL bridge daemon for RCS RS-485/RS-232 thermostats',
    long_description=long_description,
    long_description_content_type='text/markdown',
    url='',
    license='MIT',

    # Package configuration
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.8',

    # Dependencies
    install_requires=[
        'pyserial>=3.5',
        'pyyaml>=6.0',
    ],

    # Optional dependencies
    extras_require={
        'dev': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
            'black>=23.0',
            'mypy>=1.0',
            'types-pyserial>=3.5',
            'types-PyYAML>=6.0',
        ],
    },

    # Entry points
    entry_points={
        'console_scripts': [
            'rcs-bridge=rcs_bridge.daemon:main',
        ],
    },

    # Classifiers
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Topic :: Home Automation',
        'Topic :: System :: Hardware',
    ],

    # Keywords
    keywords='xpl rcs thermostat rs-485 serial bridge home-automation',
)
