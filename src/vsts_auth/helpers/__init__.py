"""URIとHTTPの補助関数。"""
