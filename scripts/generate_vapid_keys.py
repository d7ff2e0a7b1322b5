"""Generate a VAPID key pair for Web Push.

Prints env lines ready for `.env`: the uncompressed P-256 public point and the
raw 32-byte private scalar, both base64url without padding.
"""

import base64

from cryptography.hazmat.primitives.asymmetric import ec


def b64url(b: bytes) -> str:
  return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def main() -> None:
  priv = ec.generate_private_key(ec.SECP256R1())
  pub = priv.public_key().public_numbers()
  pub_bytes = b"\x04" + pub.x.to_bytes(32, "big") + pub.y.to_bytes(32, "big")
  priv_bytes = priv.private_numbers().private_value.to_bytes(32, "big")

  print(f"DEENX_PUSH_VAPID_PUBLIC_KEY={b64url(pub_bytes)}")
  print(f"DEENX_PUSH_VAPID_PRIVATE_KEY={b64url(priv_bytes)}")
  print("DEENX_PUSH_VAPID_SUBJECT=mailto:admin@example.com")


if __name__ == "__main__":
  main()
