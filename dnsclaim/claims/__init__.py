"""
Claim protocol package.

Binds an Ethereum wallet to a DNS domain through signed, time-bounded
TXT records: payload codec, signature codec, DNS resolver, subdomain
allocator, claim generator and the verification pipeline.
"""
