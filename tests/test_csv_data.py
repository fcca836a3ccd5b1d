import os
import sys
import tempfile

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tick_replay.data.csv_data import ladder_depth, load_ticks, load_transactions
from tick_replay.data.models import Direction
from tick_replay.errors import DataError

import unittest

TICK_HEADER = (
    "chWindCode,nTime,nPrice,"
    "nAskPrice1,nAskPrice2,nAskPrice3,nAskVolume1,nAskVolume2,nAskVolume3,"
    "nBidPrice1,nBidPrice2,nBidPrice3,nBidVolume1,nBidVolume2,nBidVolume3,"
    "TotalVolume,HighLimited,LowLimited"
)


class TestLoadTicks(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def write(self, name: str, text: str) -> str:
        path = os.path.join(self._tmp.name, name)
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(text)
        return path

    def test_rows_are_mapped_and_sorted(self) -> None:
        path = self.write('ticks.csv', "\n".join([
            TICK_HEADER,
            "601012.SH,93003000,1001,1002,1003,0,10,20,0,1000,999,998,30,40,50,100,1100,900",
            "601012.SH,93000000,1000,1001,1002,1003,10,20,30,999,998,997,30,40,50,100,1100,900",
        ]))
        ticks = load_ticks(path)
        self.assertEqual([t.timestamp for t in ticks], [34_200_000, 34_203_000])
        self.assertEqual(ticks[0].asks, ((1001, 10), (1002, 20), (1003, 30)))
        self.assertEqual(ticks[0].bids, ((999, 30), (998, 40), (997, 50)))
        # Empty third ask slot is dropped.
        self.assertEqual(ticks[1].asks, ((1002, 10), (1003, 20)))
        self.assertEqual(ticks[1].new_price, 1001)
        self.assertEqual(ticks[1].high_limited, 1100)
        self.assertEqual(ticks[1].low_limited, 900)
        self.assertIsInstance(ticks[0].timestamp, int)

    def test_ladder_depth_from_header(self) -> None:
        self.assertEqual(ladder_depth(TICK_HEADER.split(",")), 3)
        self.assertEqual(ladder_depth(["nAskPrice1", "nAskPrice3"]), 1)
        self.assertEqual(ladder_depth(["nPrice"]), 0)

    def test_missing_columns(self) -> None:
        path = self.write('ticks.csv', "nTime,nPrice\n93000000,1000\n")
        with self.assertRaises(DataError):
            load_ticks(path)

    def test_non_numeric_values(self) -> None:
        path = self.write('ticks.csv', "\n".join([
            TICK_HEADER,
            "601012.SH,93000000,abc,1001,1002,1003,10,20,30,999,998,997,30,40,50,100,1100,900",
        ]))
        with self.assertRaises(DataError):
            load_ticks(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_ticks(os.path.join(self._tmp.name, 'nope.csv'))

    def test_empty_file(self) -> None:
        path = self.write('ticks.csv', "")
        with self.assertRaises(DataError):
            load_ticks(path)

    def test_undecodable_bytes(self) -> None:
        path = os.path.join(self._tmp.name, 'ticks.csv')
        with open(path, 'wb') as fh:
            fh.write(TICK_HEADER.encode('ascii') + b"\n\xff\xfe\x93,\xc3\x28\n")
        with self.assertRaises(DataError):
            load_ticks(path)


class TestLoadTransactions(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def write(self, text: str) -> str:
        path = os.path.join(self._tmp.name, 'trx.csv')
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(text)
        return path

    def test_rows_are_mapped_and_sorted(self) -> None:
        path = self.write("\n".join([
            "Tkr,Time,Index,Price,Volume,Turnover,BSFlag,OrderKind,FunctionCode,AskOrder,BidOrder",
            "601012,93000500,2,1001,300,300300,S,0,0,11,12",
            "601012,93000100,1,1000,200,200000,B,0,0,13,14",
        ]))
        transactions = load_transactions(path)
        self.assertEqual([t.index for t in transactions], [1, 2])
        self.assertEqual(transactions[0].timestamp, 34_200_100)
        self.assertIs(transactions[0].direction, Direction.BUY)
        self.assertIs(transactions[1].direction, Direction.SELL)
        self.assertEqual((transactions[1].price, transactions[1].volume), (1001, 300))

    def test_unknown_flag(self) -> None:
        path = self.write("Time,Index,Price,Volume,BSFlag\n93000100,1,1000,200,X\n")
        with self.assertRaises(DataError):
            load_transactions(path)

    def test_empty_file(self) -> None:
        path = self.write("")
        with self.assertRaises(DataError):
            load_transactions(path)

    def test_ragged_rows(self) -> None:
        path = self.write("\n".join([
            "Time,Index,Price,Volume,BSFlag",
            "93000100,1,1000,200,B",
            "93000200,2,1000,200,S,7,8",
        ]) + "\n")
        with self.assertRaises(DataError):
            load_transactions(path)


if __name__ == '__main__':
    unittest.main()
