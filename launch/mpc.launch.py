import os

from ament_index_python.packages import get_package_share_directory
from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():
    config_file = os.path.join(get_package_share_directory('line_mpc'), 'config', 'mpc_config.yaml')
    return LaunchDescription([
        DeclareLaunchArgument('params', default_value=config_file,
                              description='MPC parameter file'),
        Node(
            package='line_mpc',
            executable='mpc_line',
            name='mpc_line_tracker',
            output='screen',
            emulate_tty=True,
            parameters=[LaunchConfiguration('params')],
        ),
    ])
