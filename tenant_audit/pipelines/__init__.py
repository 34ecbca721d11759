"""One pipeline per report: fetch, fan out, aggregate, write."""
