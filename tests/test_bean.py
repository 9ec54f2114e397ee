import random
import unittest

from bean import Bean, InvalidConfiguration, Luck, Skill, draw_skill, make_beans


class TestBean(unittest.TestCase):
    def test_luck_follows_coin_flips(self):
        bean = Bean(10, True, random.Random(42))
        coin = random.Random(42)
        expected = 0
        for _ in range(9):
            bean.advance_choice()
            expected += coin.getrandbits(1)
            self.assertEqual(bean.current_x(), expected)
        self.assertEqual(bean.mode, Luck())

    def test_reset_returns_to_origin(self):
        bean = Bean.with_mode(5, Skill(4))
        for _ in range(3):
            bean.advance_choice()
        self.assertEqual(bean.current_x(), 3)
        bean.reset()
        self.assertEqual(bean.current_x(), 0)
        bean.reset()
        self.assertEqual(bean.current_x(), 0)
        self.assertEqual(bean.mode, Skill(4))

    def test_skill_stops_at_threshold(self):
        bean = Bean.with_mode(6, Skill(2))
        path = []
        for _ in range(5):
            bean.advance_choice()
            path.append(bean.current_x())
        self.assertEqual(path, [1, 2, 2, 2, 2])

    def test_skill_replay_is_identical(self):
        bean = Bean(8, False, random.Random(7))
        threshold = bean.mode.threshold
        for _ in range(3):
            bean.reset()
            for _ in range(7):
                bean.advance_choice()
            self.assertEqual(bean.current_x(), threshold)

    def test_luck_never_leaves_board(self):
        bean = Bean(3, True, random.Random(1))
        for _ in range(50):
            bean.advance_choice()
            self.assertLessEqual(bean.current_x(), 2)

    def test_draw_skill_is_clamped(self):
        rng = random.Random(99)
        for slots in (1, 2, 5, 20):
            for _ in range(200):
                skill = draw_skill(slots, rng)
                self.assertGreaterEqual(skill.threshold, 0)
                self.assertLess(skill.threshold, slots)
        self.assertEqual(draw_skill(1, rng), Skill(0))

    def test_invalid_dimensions(self):
        with self.assertRaises(InvalidConfiguration):
            Bean(0, True)
        with self.assertRaises(InvalidConfiguration):
            Bean.with_mode(3, Skill(3))
        with self.assertRaises(InvalidConfiguration):
            Bean.with_mode(3, Skill(-1))

    def test_width(self):
        self.assertEqual(Bean(7, True).width, 7)

    def test_explicit_mode_skips_the_skill_draw(self):
        rng = random.Random(5)
        bean = Bean(6, False, rng, mode=Skill(1))
        self.assertEqual(bean.mode, Skill(1))
        self.assertEqual(rng.random(), random.Random(5).random())
        with self.assertRaises(InvalidConfiguration):
            Bean(6, False, mode=Skill(6))


class TestMakeBeans(unittest.TestCase):
    def test_builds_requested_count(self):
        beans = make_beans(5, 4, luck=True, seed=1)
        self.assertEqual(len(beans), 4)
        self.assertEqual(len({id(bean) for bean in beans}), 4)
        self.assertTrue(all(bean.mode == Luck() for bean in beans))
        self.assertEqual(make_beans(5, 0, luck=False), [])

    def test_seed_is_reproducible(self):
        first = [bean.mode for bean in make_beans(9, 20, luck=False, seed=123)]
        second = [bean.mode for bean in make_beans(9, 20, luck=False, seed=123)]
        self.assertEqual(first, second)

        a, b = make_beans(9, 1, luck=True, seed=5)[0], make_beans(9, 1, luck=True, seed=5)[0]
        for _ in range(8):
            a.advance_choice()
            b.advance_choice()
        self.assertEqual(a.current_x(), b.current_x())

    def test_rejects_bad_counts(self):
        with self.assertRaises(InvalidConfiguration):
            make_beans(0, 3, luck=True)
        with self.assertRaises(InvalidConfiguration):
            make_beans(3, -1, luck=True)


if __name__ == "__main__":
    unittest.main()
