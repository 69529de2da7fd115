import threading

from fspak.lib.cipher import KeySchedule, PakCipher, advance, fold, step

from .. import TestBase


class TestPakCipher(TestBase):

    def test_first_step_of_default_key(self):
        cipher = PakCipher(0xA2A2A2A2)
        self.assertEqual(cipher.process(B'\0'), B'\x19')
        self.assertEqual(cipher.state, 0x6C6C6C75)

    def test_multiplication_is_truncated(self):
        for state in (0xA2A2A2A2, 0x72EBCAFD, 0x12345678, 0x0FFFFFFF):
            self.assertEqual(step(state), ((0x1D * state + 0x1B) % 0x100000000) % 0x72EBCAFE)
        self.assertNotEqual(step(0xA2A2A2A2), (0x1D * 0xA2A2A2A2 + 0x1B) % 0x72EBCAFE)

    def test_fold(self):
        self.assertEqual(fold(0x00000000), 0x00)
        self.assertEqual(fold(0x12345678), 0x12 ^ 0x34 ^ 0x56 ^ 0x78)
        self.assertEqual(fold(0x6C6C6C75), 0x19)

    def test_process_is_an_involution(self):
        data = self.generate_random_buffer(500)
        for key in (0, 1, 0xA2A2A2A2, 0xFFFFFFFF):
            encrypted = PakCipher(key).encrypt(data)
            self.assertNotEqual(encrypted, data)
            self.assertEqual(PakCipher(key).decrypt(encrypted), data)

    def test_process_does_not_modify_input(self):
        data = bytearray(self.generate_random_buffer(64))
        copy = bytes(data)
        PakCipher(0xA2A2A2A2).process(data)
        self.assertEqual(data, copy)

    def test_empty_input(self):
        cipher = PakCipher(0xA2A2A2A2)
        self.assertEqual(cipher.process(B''), B'')
        self.assertEqual(cipher.state, 0xA2A2A2A2)

    def test_state_continues_across_calls(self):
        data = self.generate_random_buffer(100)
        whole = PakCipher(0xA2A2A2A2).process(data)
        cipher = PakCipher(0xA2A2A2A2)
        parts = cipher.process(data[:22]) + cipher.process(data[22:68]) + cipher.process(data[68:])
        self.assertEqual(parts, whole)

    def test_skip_equals_processing(self):
        a = PakCipher(0xA2A2A2A2)
        b = PakCipher(0xA2A2A2A2)
        a.process(bytes(37))
        b.skip(37)
        self.assertEqual(a.state, b.state)
        data = self.generate_random_buffer(20)
        self.assertEqual(a.process(data), b.process(data))

    def test_advance_equals_repeated_step(self):
        state = 0xA2A2A2A2
        for count in range(200):
            self.assertEqual(advance(0xA2A2A2A2, count), state)
            state = step(state)

    def test_advance_rejects_negative_count(self):
        self.assertRaises(ValueError, advance, 0xA2A2A2A2, -1)

    def test_replay(self):
        cipher = PakCipher(0xBAADF00D)
        cipher.skip(1000)
        self.assertEqual(PakCipher.Replay(0xBAADF00D, 1000).state, cipher.state)

    def test_keystream(self):
        cipher = PakCipher(0xA2A2A2A2)
        stream = cipher.keystream()
        key = bytes(next(stream) for _ in range(50))
        self.assertEqual(key, PakCipher(0xA2A2A2A2).process(bytes(50)))
        self.assertEqual(cipher.state, advance(0xA2A2A2A2, 50))


class TestKeySchedule(TestBase):

    def test_schedule_matches_replay(self):
        schedule = KeySchedule(0xA2A2A2A2, interval=7)
        for position in (0, 1, 6, 7, 8, 13, 14, 15, 100, 49, 3):
            self.assertEqual(schedule.state(position), advance(0xA2A2A2A2, position))

    def test_default_interval(self):
        schedule = KeySchedule(0xA2A2A2A2)
        for position in (0x3FFF, 0x4000, 0x4001, 0x8123):
            self.assertEqual(schedule.state(position), advance(0xA2A2A2A2, position))

    def test_cipher_is_independent(self):
        schedule = KeySchedule(0xA2A2A2A2, interval=16)
        c1 = schedule.cipher(40)
        c2 = schedule.cipher(40)
        c1.process(bytes(10))
        self.assertEqual(c2.state, advance(0xA2A2A2A2, 40))
        self.assertEqual(schedule.cipher(50).state, c1.state)

    def test_invalid_arguments(self):
        self.assertRaises(ValueError, KeySchedule, 0, 0)
        self.assertRaises(ValueError, KeySchedule(0).state, -1)

    def test_concurrent_lookups(self):
        schedule = KeySchedule(0x1234, interval=5)
        positions = list(range(0, 300, 7))
        results = {}

        def lookup(offset):
            for position in positions[offset::4]:
                results[position] = schedule.state(position)

        threads = [threading.Thread(target=lookup, args=(k,)) for k in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        for position in positions:
            self.assertEqual(results[position], advance(0x1234, position))
