from setuptools import setup, find_packages

setup(
    name="relaychat",
    version="0.1.0",
    description="Two-party real-time chat backend: accounts, presence, messaging and typing over WebSocket",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "fastapi==0.116.1",
        "uvicorn[standard]==0.35.0",
        "sqlalchemy==2.0.42",
        "aiosqlite==0.21.0",
        "asyncpg==0.30.0",
        "environs==14.2.0",
        "python-jose[cryptography]==3.5.0",
        "pydantic==2.11.7",
        "dishka==1.6.0",
        "bcrypt==4.3.0"
    ],
    extras_require={
        "test": [
            "pytest==8.4.1",
            "pytest-asyncio==1.1.0",
            "httpx==0.28.1"
        ]
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "relaychat=relaychat.main:main"
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
