################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from oasis_replay.vehicle.replay_ahrs import EstimatorSnapshot
from oasis_replay.vehicle.replay_ahrs import ReplayAhrs
from oasis_replay.vehicle.replay_vehicle import ReplayVehicle


__all__ = [
    "EstimatorSnapshot",
    "ReplayAhrs",
    "ReplayVehicle",
]
