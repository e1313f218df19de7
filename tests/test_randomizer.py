import random

from keypoint_sim.randomizer import PoseRandomizer


def test_draws_stay_in_range():
    rnd = PoseRandomizer(random.Random(11).uniform)
    for _ in range(500):
        x, y, z = rnd.random_target_rotation()
        assert -50 <= x <= 50 and -50 <= y <= 50 and 0 <= z <= 360
        pitch, yaw = rnd.random_light_rotation()
        assert 20 <= pitch <= 90 and -30 <= yaw <= 70
        assert -2.0 <= rnd.random_distance(-2.0, 0.0) <= 0.0


def test_draws_go_through_the_given_uniform():
    calls = []

    def uniform(lo, hi):
        calls.append((lo, hi))
        return lo

    rnd = PoseRandomizer(uniform)
    assert rnd.random_target_rotation() == (-50.0, -50.0, 0.0)
    assert rnd.random_light_rotation() == (20.0, -30.0)
    assert calls == [(-50.0, 50.0), (-50.0, 50.0), (0.0, 360.0), (20.0, 90.0), (-30.0, 70.0)]
