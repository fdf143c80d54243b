################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from __future__ import annotations

import math

import numpy as np


################################################################################
# Madgwick AHRS
################################################################################


class MadgwickAhrs:
    """
    Madgwick attitude filter for 6-axis and 9-axis IMU data

    The quaternion rotates body vectors into the world frame. Feeding it the
    negated specific force of a forward-right-down body makes the world frame
    north-east-down, which is the convention of replayed flight logs.

        gyro (gx, gy, gz) --> [q_dot_gyro = 0.5 * q x [0, gx, gy, gz]]
                                          |
        accel (ax, ay, az) --> [normalize] --> [gravity residuals f1..f3]
                                          |
        mag (mx, my, mz)   --> [normalize] --> [field residuals f4..f6]
                                          |
                              [gradient step s1..s4, scaled by beta]
                                          |
                              q_dot = q_dot_gyro - beta * s
                                          |
                              [integrate dt, normalize] --> _quaternion

    Mapping notes:
      - q1..q4 correspond to (w, x, y, z) but are stored as
        _quaternion = [x, y, z, w]
      - f1..f3 are gravity residuals, f4..f6 are magnetic residuals
    """

    def __init__(self, beta: float = 0.1) -> None:
        self._beta: float = float(beta)
        self._quaternion: np.ndarray = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)

    @property
    def beta(self) -> float:
        return self._beta

    @beta.setter
    def beta(self, beta: float) -> None:
        self._beta = max(0.0, float(beta))

    @property
    def quaternion(self) -> tuple[float, float, float, float]:
        """
        Get the current quaternion as (x, y, z, w)
        """

        return (
            float(self._quaternion[0]),
            float(self._quaternion[1]),
            float(self._quaternion[2]),
            float(self._quaternion[3]),
        )

    def reset(self) -> None:
        self._quaternion = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)

    def euler_angles(self) -> np.ndarray:
        """
        Return (roll, pitch, yaw) in radians, yaw in [-pi, pi]
        """

        return quaternion_to_euler(self._quaternion)

    def body_to_world(self) -> np.ndarray:
        return rotation_matrix_body_to_world(self._quaternion)

    def update_imu(
        self,
        gx: float,
        gy: float,
        gz: float,
        ax: float,
        ay: float,
        az: float,
        dt_s: float,
    ) -> None:
        """
        Update the filter with gyro (rad/s) and accelerometer data
        """

        dt: float = float(dt_s)
        if dt <= 0.0:
            return

        accel_norm: float = math.sqrt(ax * ax + ay * ay + az * az)
        if accel_norm <= 0.0:
            self._integrate_gyro(gx, gy, gz, dt)
            return

        ax /= accel_norm
        ay /= accel_norm
        az /= accel_norm

        q2, q3, q4, q1 = (float(value) for value in self._quaternion)

        f1: float = 2.0 * (q2 * q4 - q1 * q3) - ax
        f2: float = 2.0 * (q1 * q2 + q3 * q4) - ay
        f3: float = 2.0 * (0.5 - q2 * q2 - q3 * q3) - az

        s1: float = -2.0 * q3 * f1 + 2.0 * q2 * f2
        s2: float = 2.0 * q4 * f1 + 2.0 * q1 * f2 - 4.0 * q2 * f3
        s3: float = -2.0 * q1 * f1 + 2.0 * q4 * f2 - 4.0 * q3 * f3
        s4: float = 2.0 * q2 * f1 + 2.0 * q3 * f2

        self._step(gx, gy, gz, (s1, s2, s3, s4), dt)

    def update(
        self,
        gx: float,
        gy: float,
        gz: float,
        ax: float,
        ay: float,
        az: float,
        mx: float,
        my: float,
        mz: float,
        dt_s: float,
    ) -> None:
        """
        Update the filter with gyro, accelerometer, and magnetometer data

        Falls back to the 6-axis update when the magnetic field is zero.
        """

        dt: float = float(dt_s)
        if dt <= 0.0:
            return

        accel_norm: float = math.sqrt(ax * ax + ay * ay + az * az)
        if accel_norm <= 0.0:
            self._integrate_gyro(gx, gy, gz, dt)
            return

        mag_norm: float = math.sqrt(mx * mx + my * my + mz * mz)
        if mag_norm <= 0.0:
            self.update_imu(gx, gy, gz, ax, ay, az, dt)
            return

        ax /= accel_norm
        ay /= accel_norm
        az /= accel_norm

        mx /= mag_norm
        my /= mag_norm
        mz /= mag_norm

        q2, q3, q4, q1 = (float(value) for value in self._quaternion)

        # Measured field rotated into the world frame
        hx: float = (
            2.0 * mx * (0.5 - q3 * q3 - q4 * q4)
            + 2.0 * my * (q2 * q3 - q1 * q4)
            + 2.0 * mz * (q2 * q4 + q1 * q3)
        )
        hy: float = (
            2.0 * mx * (q2 * q3 + q1 * q4)
            + 2.0 * my * (0.5 - q2 * q2 - q4 * q4)
            + 2.0 * mz * (q3 * q4 - q1 * q2)
        )

        # Reference field: horizontal and vertical components
        b_x: float = math.sqrt(hx * hx + hy * hy)
        b_z: float = (
            2.0 * mx * (q2 * q4 - q1 * q3)
            + 2.0 * my * (q3 * q4 + q1 * q2)
            + 2.0 * mz * (0.5 - q2 * q2 - q3 * q3)
        )

        f1: float = 2.0 * (q2 * q4 - q1 * q3) - ax
        f2: float = 2.0 * (q1 * q2 + q3 * q4) - ay
        f3: float = 2.0 * (0.5 - q2 * q2 - q3 * q3) - az
        f4: float = (
            2.0 * b_x * (0.5 - q3 * q3 - q4 * q4) + 2.0 * b_z * (q2 * q4 - q1 * q3) - mx
        )
        f5: float = (
            2.0 * b_x * (q2 * q3 - q1 * q4) + 2.0 * b_z * (q1 * q2 + q3 * q4) - my
        )
        f6: float = (
            2.0 * b_x * (q1 * q3 + q2 * q4) + 2.0 * b_z * (0.5 - q2 * q2 - q3 * q3) - mz
        )

        s1: float = (
            -2.0 * q3 * f1
            + 2.0 * q2 * f2
            - 2.0 * b_z * q3 * f4
            + (-2.0 * b_x * q4 + 2.0 * b_z * q2) * f5
            + 2.0 * b_x * q3 * f6
        )
        s2: float = (
            2.0 * q4 * f1
            + 2.0 * q1 * f2
            - 4.0 * q2 * f3
            + 2.0 * b_z * q4 * f4
            + (2.0 * b_x * q3 + 2.0 * b_z * q1) * f5
            + (2.0 * b_x * q4 - 4.0 * b_z * q2) * f6
        )
        s3: float = (
            -2.0 * q1 * f1
            + 2.0 * q4 * f2
            - 4.0 * q3 * f3
            + (-4.0 * b_x * q3 - 2.0 * b_z * q1) * f4
            + (2.0 * b_x * q2 + 2.0 * b_z * q4) * f5
            + (2.0 * b_x * q1 - 4.0 * b_z * q3) * f6
        )
        s4: float = (
            2.0 * q2 * f1
            + 2.0 * q3 * f2
            + (-4.0 * b_x * q4 + 2.0 * b_z * q2) * f4
            + (-2.0 * b_x * q1 + 2.0 * b_z * q3) * f5
            + 2.0 * b_x * q2 * f6
        )

        self._step(gx, gy, gz, (s1, s2, s3, s4), dt)

    def _step(
        self,
        gx: float,
        gy: float,
        gz: float,
        gradient: tuple[float, float, float, float],
        dt: float,
    ) -> None:
        s1, s2, s3, s4 = gradient
        s_norm: float = math.sqrt(s1 * s1 + s2 * s2 + s3 * s3 + s4 * s4)
        if s_norm > 0.0:
            s1 /= s_norm
            s2 /= s_norm
            s3 /= s_norm
            s4 /= s_norm

        q2, q3, q4, q1 = (float(value) for value in self._quaternion)

        q_dot1: float = -0.5 * (q2 * gx + q3 * gy + q4 * gz) - self._beta * s1
        q_dot2: float = 0.5 * (q1 * gx + q3 * gz - q4 * gy) - self._beta * s2
        q_dot3: float = 0.5 * (q1 * gy - q2 * gz + q4 * gx) - self._beta * s3
        q_dot4: float = 0.5 * (q1 * gz + q2 * gy - q3 * gx) - self._beta * s4

        self._quaternion = np.array(
            [q2 + q_dot2 * dt, q3 + q_dot3 * dt, q4 + q_dot4 * dt, q1 + q_dot1 * dt],
            dtype=np.float64,
        )
        self._normalize_quaternion()

    def _integrate_gyro(self, gx: float, gy: float, gz: float, dt: float) -> None:
        self._step(gx, gy, gz, (0.0, 0.0, 0.0, 0.0), dt)

    def _normalize_quaternion(self) -> None:
        norm: float = float(np.linalg.norm(self._quaternion))
        if norm <= 0.0 or not math.isfinite(norm):
            self.reset()
            return

        self._quaternion /= norm


def quaternion_to_euler(quaternion: np.ndarray) -> np.ndarray:
    """
    Convert an (x, y, z, w) quaternion to ZYX (roll, pitch, yaw) in radians
    """

    x: float = float(quaternion[0])
    y: float = float(quaternion[1])
    z: float = float(quaternion[2])
    w: float = float(quaternion[3])

    roll: float = math.atan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
    pitch: float = math.asin(max(-1.0, min(1.0, 2.0 * (w * y - z * x))))
    yaw: float = math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))

    return np.array([roll, pitch, yaw], dtype=np.float64)


def rotation_matrix_body_to_world(quaternion: np.ndarray) -> np.ndarray:
    x: float = float(quaternion[0])
    y: float = float(quaternion[1])
    z: float = float(quaternion[2])
    w: float = float(quaternion[3])

    xx: float = x * x
    yy: float = y * y
    zz: float = z * z

    xy: float = x * y
    xz: float = x * z
    yz: float = y * z

    wx: float = w * x
    wy: float = w * y
    wz: float = w * z

    return np.array(
        [
            [1.0 - 2.0 * (yy + zz), 2.0 * (xy - wz), 2.0 * (xz + wy)],
            [2.0 * (xy + wz), 1.0 - 2.0 * (xx + zz), 2.0 * (yz - wx)],
            [2.0 * (xz - wy), 2.0 * (yz + wx), 1.0 - 2.0 * (xx + yy)],
        ],
        dtype=np.float64,
    )
