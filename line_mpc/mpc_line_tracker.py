#!/usr/bin/env python3
import numpy as np
import pandas as pd
import rclpy
from rclpy.node import Node
from rclpy.duration import Duration
from rclpy.time import Time
from nav_msgs.msg import Odometry
from ackermann_msgs.msg import AckermannDriveStamped
from tf_transformations import euler_from_quaternion
from tf2_ros import Buffer, TransformListener, TransformException

from line_mpc.config import HorizonConfig
from line_mpc.controller import Actuation, MPCController
from line_mpc.errors import MPCError, OptimizationFailed
from line_mpc.receding_horizon import state_from_waypoints

# Receding-horizon line tracker
# Looks up the vehicle pose (map -> base_link) through TF, takes the next few
# waypoints of the logged path, fits a cubic in the vehicle frame and solves
# the kinematic bicycle MPC every dt. Only the first actuation is published.


class MPCLineTracker(Node):
    def __init__(self):
        super().__init__('mpc_line_tracker')

        # ─── ROS PARAMETERS ─────────────────────────────────
        self.csv_path    = self.declare_parameter('csv_path', '').value
        self.n_waypoints = self.declare_parameter('n_waypoints', 6).value
        self.map_frame   = self.declare_parameter('map_frame', 'map').value
        self.base_frame  = self.declare_parameter('base_frame', 'base_link').value
        odom_topic       = self.declare_parameter('odom_topic', '/ego_racecar/odom').value
        drive_topic      = self.declare_parameter('drive_topic', '/drive').value

        defaults = HorizonConfig()
        params = {
            'N':           self.declare_parameter('N', defaults.N).value,
            'dt':          self.declare_parameter('dt', defaults.dt).value,
            'ref_v':       self.declare_parameter('ref_v', defaults.ref_v).value,
            'Lf':          self.declare_parameter('Lf', defaults.Lf).value,
            'steer_limit': self.declare_parameter('steer_limit', defaults.steer_limit).value,
            'accel_limit': self.declare_parameter('accel_limit', defaults.accel_limit).value,
            'poly_order':  self.declare_parameter('poly_order', defaults.poly_order).value,
        }
        for name, value in vars(defaults.weights).items():
            params[f'w_{name}'] = self.declare_parameter(f'w_{name}', value).value
        params['solver_max_cpu_time'] = self.declare_parameter(
            'solver_max_cpu_time', defaults.solver.max_cpu_time).value
        params['solver_max_iter'] = self.declare_parameter(
            'solver_max_iter', defaults.solver.max_iter).value
        # ────────────────────────────────────────────────────

        self.config = HorizonConfig.from_dict(params)
        self.controller = MPCController(self.config)

        df = pd.read_csv(self.csv_path)
        self.wp = df[['x', 'y']].to_numpy()
        self.get_logger().info(f"Loaded {len(self.wp)} waypoints from {self.csv_path}")

        self.tf_buffer = Buffer()
        self.tf_listener = TransformListener(self.tf_buffer, self)

        self.velocity = 0.0
        self.last_actuation = Actuation(0.0, 0.0)
        self.create_subscription(Odometry, odom_topic, self.odom_callback, 10)
        self.drive_pub = self.create_publisher(AckermannDriveStamped, drive_topic, 10)

        self.create_timer(self.config.dt, self.control_loop)
        self.get_logger().info(f"Line-tracking MPC started (N={self.config.N}, dt={self.config.dt})")

    def odom_callback(self, msg: Odometry):
        self.velocity = msg.twist.twist.linear.x

    def _lookup_pose(self):
        """Lookup base_link in map frame via TF; return (x, y, yaw) or None."""
        try:
            t = self.tf_buffer.lookup_transform(
                self.map_frame, self.base_frame, Time(),
                timeout=Duration(seconds=0.1))
        except TransformException as ex:
            self.get_logger().warn(f"TF lookup failed: {ex}")
            return None

        q = t.transform.rotation
        _, _, yaw = euler_from_quaternion([q.x, q.y, q.z, q.w])
        return t.transform.translation.x, t.transform.translation.y, yaw

    def _upcoming_waypoints(self, x, y):
        d = np.linalg.norm(self.wp - np.array([x, y]), axis=1)
        idx = int(np.argmin(d))
        rows = [(idx + k) % len(self.wp) for k in range(self.n_waypoints)]
        return self.wp[rows, 0], self.wp[rows, 1]

    def control_loop(self):
        pose = self._lookup_pose()
        if pose is None:
            return
        x, y, yaw = pose
        ptsx, ptsy = self._upcoming_waypoints(x, y)

        try:
            state, coeffs = state_from_waypoints(ptsx, ptsy, x, y, yaw, self.velocity,
                                                 order=self.config.poly_order)
            solution = self.controller.solve(state, coeffs)
            actuation = solution.actuation
            self.get_logger().debug(
                f"cte={state.cte:.3f} epsi={state.epsi:.3f} cost={solution.cost:.2f}")
        except OptimizationFailed as e:
            actuation = self.last_actuation
            self.get_logger().warn(f"MPC solver failed ({e.status}); holding last command")
        except MPCError as e:
            actuation = self.last_actuation
            self.get_logger().warn(f"MPC setup failed: {e}; holding last command")

        msg = AckermannDriveStamped()
        msg.header.stamp = self.get_clock().now().to_msg()
        msg.header.frame_id = self.base_frame
        msg.drive.steering_angle = float(actuation.delta)
        msg.drive.acceleration = float(actuation.a)
        msg.drive.speed = float(max(0.0, self.velocity + actuation.a * self.config.dt))
        self.drive_pub.publish(msg)
        self.last_actuation = actuation


def main(args=None):
    rclpy.init(args=args)
    node = MPCLineTracker()
    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
