import os
import sys

import pytest

# プロジェクトの src を追加
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from fibcursor.common import reset_config


# 既知のフィボナッチ数
FIB_VALUES = {
    0: 0,
    1: 1,
    2: 1,
    3: 2,
    4: 3,
    5: 5,
    6: 8,
    7: 13,
    8: 21,
    9: 34,
    10: 55,
    11: 89,
    50: 12586269025,
    75: 2111485077978050,
    100: 354224848179261915075,
    1000: int(
        "43466557686937456435688527675040625802564660517371780402481729089536555417949051890403879840079255169295922593080322634775209689623239873322471161642996440906533187938298969649928516003704476137795166849228875"
    ),
}


def fib(n):
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a


@pytest.fixture(autouse=True)
def clean_config():
    """Drop the process-wide config between tests"""
    reset_config()
    yield
    reset_config()
