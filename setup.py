from setuptools import setup, find_packages

setup(
    name='clusterup',
    version='0.1.0',
    packages=find_packages(exclude=['clusterup.tests']),
    include_package_data=True,
    package_data={
        'clusterup': ['templates/*.j2'],
    },
    install_requires=[
        'typer>=0.9',
        'pydantic>=2.0',
        'pyyaml',
        'python-dotenv',
        'jsonschema',
        'jinja2',
        'kubernetes',
        'paramiko',
        'requests'
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'clusterup=clusterup.cli:app'
        ]
    },
    description='Bootstrap a small kubeadm Kubernetes cluster: runtime, tooling, control plane, workers and add-ons',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
