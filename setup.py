from setuptools import setup, find_packages

setup(
    name             = 'sms-screener',
    version          = '1.0.0',
    description      = 'SMS Screener — bulk SMS spam / scam classification (keyword pre-filter + LLM)',
    packages         = find_packages(exclude=['tests*']),
    install_requires = open('requirements.txt').read().splitlines(),
    extras_require   = {
        'test': ['pytest>=7.0', 'httpx>=0.24'],
    },
    entry_points     = {
        'console_scripts': [
            'screener     = screener.cli:main',
            'screener-api = screener.api:main',
        ],
    },
    python_requires  = '>=3.10',
    classifiers      = [
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)
