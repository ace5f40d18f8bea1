from setuptools import find_packages, setup


if __name__ == '__main__':
    setup(
        name='nlc-planner',
        version=1.0,
        description='Nonlinear MPC trajectory planner tracking a smoothed route at an adaptive reference velocity, with a closed-loop simulation on synthetic scenarios.',
        author='Mohamed-Khalil Bouzidi',
        author_email='mohamed-khalil.bouzidi@continental.com',
        license='Apache License 2.0',
        packages=find_packages(exclude=['tests', 'configs', 'output']),
        package_data={'nlc_planner': ['configs/*.yaml']},
        python_requires='>=3.9',
        install_requires=[
            'numpy',
            'scipy',
            'casadi',
            'shapely>=2.0',
            'omegaconf',
            'hydra-core',
        ],
        extras_require={
            'test': ['pytest'],
        },
    )
