from cryptography.hazmat.primitives.asymmetric import ec

from signal_journal.app.crypto.ecdsa import encode_public_key, sign_content


def generate_key_pair():
    """Return (private_key, base64 public key) on P-256."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, encode_public_key(private_key.public_key())


def signed(content, private_key=None):
    """Return (signature, public_key) for ``content`` with a fresh or given key."""
    if private_key is None:
        private_key, public_key = generate_key_pair()
    else:
        public_key = encode_public_key(private_key.public_key())
    return sign_content(content, private_key), public_key
