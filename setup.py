from setuptools import find_packages, setup
import os
from glob import glob

package_name = 'line_mpc'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        (os.path.join('share', package_name, 'launch'), glob('launch/*')),
        (os.path.join('share', package_name, 'config'), glob('config/*'))
    ],
    install_requires=[
        'setuptools',
        'numpy',
        'scipy',
        'casadi>=3.6',
        'pandas',
        'PyYAML',
        'matplotlib',
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=True,
    maintainer='siddarth',
    maintainer_email='siddarth.dayasagar@gmail.com',
    description='Receding-horizon MPC line tracking with a kinematic bicycle model',
    license='MIT',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'mpc_line = line_mpc.mpc_line_tracker:main',
            'mpc_line_sim = line_mpc.sim.mpc_line_sim:main',
        ],
    },
)
