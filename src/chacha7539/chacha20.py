#!/usr/bin/env python
# Reference: ChaCha20 and Poly1305 for IETF Protocols
# https://datatracker.ietf.org/doc/html/rfc7539
# %% imports
import logging
from array import array
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# %% Parameters
MASK32 = 0xFFFFFFFF
KEY_SIZE = 32
NONCE_SIZE = 12
BLOCK_SIZE = 64
STATE_WORDS = 16
ROUNDS = 20

SIGMA = b'expand 32-byte k'

# %% Little-endian codec
def _check_word(name, v):
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError(f"{name} must be an int, got {type(v).__name__}")
    if not 0 <= v <= MASK32:
        raise ValueError(f"{name} must fit in 32 bits, got {v}")

def _check_counter(counter):
    _check_word("Counter", counter)

def word_to_bytes(v):
    _check_word("Word", v)
    return v.to_bytes(4, 'little')

def bytes_to_word(b):
    if len(b) != 4:
        raise ValueError(f"Word must be 4 bytes, got {len(b)}")
    return int.from_bytes(b, 'little')

def bytes_to_words(b):
    """
    Split a byte string into little-endian 32-bit words.  The length of b
    must be a multiple of four.
    """
    if len(b) % 4:
        raise ValueError(f"Length must be a multiple of 4 bytes, got {len(b)}")
    return [bytes_to_word(b[i:i + 4]) for i in range(0, len(b), 4)]

def words_to_bytes(words):
    return b''.join(word_to_bytes(w) for w in words)

CONSTANTS = tuple(bytes_to_words(SIGMA))

# %% ChaCha Basic Ops
def add(a, b):
    return (a + b) & MASK32

def xor(a, b):
    return a ^ b

def left_roll(x, c):
    """Rotate the 32-bit word x left by c bits; c is reduced modulo 32."""
    c %= 32
    x &= MASK32
    return ((x << c) | (x >> (32 - c))) & MASK32

rotl32 = left_roll

# %% ChaCha Quarter Round
def chacha_quarter_round(a: int, b: int, c: int, d: int) -> tuple:
    """
    The basic operation of the ChaCha algorithm is the quarter round.  It
    operates on four 32-bit unsigned integers, denoted a, b, c, and d.
    The operation is as follows (in C-like notation):

        a += b; d ^= a; d <<<= 16;
        c += d; b ^= c; b <<<= 12;
        a += b; d ^= a; d <<<= 8;
        c += d; b ^= c; b <<<= 7;

    Where "+" denotes integer addition modulo 2^32, "^" denotes a bitwise
    Exclusive OR (XOR), and "<<< n" denotes an n-bit left roll (towards
    the high bits).
    """
    a = add(a, b); d = left_roll(xor(d, a), 16)
    c = add(c, d); b = left_roll(xor(b, c), 12)
    a = add(a, b); d = left_roll(xor(d, a), 8)
    c = add(c, d); b = left_roll(xor(b, c), 7)
    return a, b, c, d

def quarter_round(x, a, b, c, d):
    """
    QUARTERROUND(a, b, c, d) on the 16-word state x, in place.  For
    example, QUARTERROUND(1, 5, 9, 13) runs the quarter round on the
    elements marked with an asterisk, while leaving the others alone:

            0  *a   2   3
            4  *b   6   7
            8  *c  10  11
           12  *d  14  15

    The indices must be distinct and lie in [0, 16).
    """
    x[a], x[b], x[c], x[d] = chacha_quarter_round(x[a], x[b], x[c], x[d])

COLUMN_ROUND = ((0, 4, 8, 12), (1, 5, 9, 13), (2, 6, 10, 14), (3, 7, 11, 15))
DIAGONAL_ROUND = ((0, 5, 10, 15), (1, 6, 11, 12), (2, 7, 8, 13), (3, 4, 9, 14))

def double_round(x):
    for indices in COLUMN_ROUND + DIAGONAL_ROUND:
        quarter_round(x, *indices)

# %% ChaCha State
@dataclass
class ChaChaState:
    """
    The ChaCha20 state, with its sixteen words kept as named parts:

        cccccccc  cccccccc  cccccccc  cccccccc
        kkkkkkkk  kkkkkkkk  kkkkkkkk  kkkkkkkk
        kkkkkkkk  kkkkkkkk  kkkkkkkk  kkkkkkkk
        bbbbbbbb  nnnnnnnn  nnnnnnnn  nnnnnnnn

    c=constant k=key b=blockcount n=nonce

    It reads like the flat 16-word vector (len, indexing, iteration), which
    is what block() consumes.  Only the counter changes between blocks.
    """
    key: tuple = field(repr=False)
    counter: int
    nonce: tuple
    constants: tuple = CONSTANTS

    def __post_init__(self):
        self.key = tuple(self.key)
        self.nonce = tuple(self.nonce)
        self.constants = tuple(self.constants)
        if len(self.constants) != 4:
            raise ValueError(f"State needs 4 constant words, got {len(self.constants)}")
        if len(self.key) != 8:
            raise ValueError(f"State needs 8 key words, got {len(self.key)}")
        if len(self.nonce) != 3:
            raise ValueError(f"State needs 3 nonce words, got {len(self.nonce)}")
        _check_counter(self.counter)
        for name, words in (("Constant", self.constants), ("Key", self.key),
                            ("Nonce", self.nonce)):
            for w in words:
                _check_word(f"{name} word", w)

    @classmethod
    def from_words(cls, words):
        words = list(words)
        if len(words) != STATE_WORDS:
            raise ValueError(f"State must be {STATE_WORDS} words, got {len(words)}")
        return cls(key=words[4:12], counter=words[12], nonce=words[13:16],
                   constants=words[0:4])

    def words(self):
        return array('L', self.constants + self.key + (self.counter,) + self.nonce)

    def advance(self):
        """Step the block counter, modulo 2^32.  Returns True if it wrapped."""
        self.counter = add(self.counter, 1)
        return self.counter == 0

    def __len__(self):
        return STATE_WORDS

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self.words()[index]
        i = range(STATE_WORDS)[index]
        if i < 4:
            return self.constants[i]
        if i < 12:
            return self.key[i - 4]
        if i == 12:
            return self.counter
        return self.nonce[i - 13]

    def __iter__(self):
        yield from self.constants
        yield from self.key
        yield self.counter
        yield from self.nonce

# %% ChaCha20 Block Function
def _check_rounds(rounds):
    if not isinstance(rounds, int) or isinstance(rounds, bool):
        raise TypeError(f"Rounds must be an int, got {type(rounds).__name__}")
    if rounds <= 0 or rounds % 2:
        raise ValueError(f"Rounds must be a positive even number, got {rounds}")

def block(state, rounds=ROUNDS):
    """
    ChaCha20 runs 20 rounds, alternating between "column rounds" and
    "diagonal rounds".  Each round consists of four quarter-rounds, and
    they are run as follows.  Quarter rounds 1-4 are part of a "column"
    round, while 5-8 are part of a "diagonal" round:

        1.  QUARTERROUND ( 0, 4, 8,12)
        2.  QUARTERROUND ( 1, 5, 9,13)
        3.  QUARTERROUND ( 2, 6,10,14)
        4.  QUARTERROUND ( 3, 7,11,15)
        5.  QUARTERROUND ( 0, 5,10,15)
        6.  QUARTERROUND ( 1, 6,11,12)
        7.  QUARTERROUND ( 2, 7, 8,13)
        8.  QUARTERROUND ( 3, 4, 9,14)

    At the end of 20 rounds (or 10 iterations of the above list), we add
    the original input words to the output words, and serialize the
    result by sequencing the words one-by-one in little-endian order.

    state is any 16-word sequence, usually a ChaChaState; it is left
    untouched.  rounds other than 20 only exist for reduced-round testing.
    """
    _check_rounds(rounds)
    initial = array('L', state)
    if len(initial) != STATE_WORDS:
        raise ValueError(f"State must be {STATE_WORDS} words, got {len(initial)}")
    x = array('L', initial)
    for _ in range(rounds // 2):
        double_round(x)
    return words_to_bytes(add(w, s) for w, s in zip(x, initial))

# %% ChaCha20 State Setup
def init_state(key, counter, nonce):
    """
    The inputs to ChaCha20 are:

    o  A 256-bit key, treated as a concatenation of eight 32-bit little-
       endian integers.
    o  A 96-bit nonce, treated as a concatenation of three 32-bit little-
       endian integers.
    o  A 32-bit block count parameter, treated as a 32-bit little-endian
       integer.

    The first four words (0-3) are constants: 0x61707865, 0x3320646e,
    0x79622d32, 0x6b206574.  The next eight words (4-11) are taken from
    the 256-bit key, word 12 is a block counter, and words 13-15 are the
    nonce.
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    _check_counter(counter)
    return ChaChaState(key=bytes_to_words(key), counter=counter,
                       nonce=bytes_to_words(nonce))

# %% ChaCha20 Encryption
def _generate_keystream(state, length):
    wrapped = False
    while length > 0:
        ks = block(state, ROUNDS)
        if state.advance() and not wrapped:
            logger.warning("ChaCha20 block counter wrapped to 0; keystream will repeat")
            wrapped = True
        if length < len(ks):
            ks = ks[:length]
        yield ks
        length -= len(ks)

def keystream(key, counter, nonce, length):
    """
    A generator which yields `length` bytes of keystream, one 64-byte
    block at a time; the last block is cut down to what is needed.
    """
    state = init_state(key, counter, nonce)
    return _generate_keystream(state, length)

def xor_stream_into(key, counter, nonce, data, out=None):
    """
    ChaCha20 is a stream cipher: successive calls to the block function
    with the same key and nonce and successively increasing block counter
    parameters are concatenated into a keystream, which is XORed with the
    plaintext.  The last block may be partial; the extra keystream is
    discarded.

    The result is written into `out`, a writable buffer the same length
    as `data`.  By default that is `data` itself, encrypting in place.
    """
    if out is None:
        out = data
    if len(out) != len(data):
        raise ValueError(f"Output buffer is {len(out)} bytes, input is {len(data)}")
    state = init_state(key, counter, nonce)
    logger.debug("ChaCha20: %d bytes in %d blocks from counter %d",
                 len(data), -(-len(data) // BLOCK_SIZE), counter)

    offset = 0
    for ks in _generate_keystream(state, len(data)):
        for j, k in enumerate(ks):
            out[offset + j] = data[offset + j] ^ k
        offset += len(ks)
    return out

def xor_stream(key, counter, nonce, data):
    """
    Returns data encrypted/decrypted.  key is 32 bytes, nonce 12 bytes and
    counter the initial 32-bit block count.
    """
    return bytes(xor_stream_into(key, counter, nonce, bytearray(data)))

encrypt = xor_stream
decrypt = xor_stream
