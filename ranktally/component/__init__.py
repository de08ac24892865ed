'''Building blocks of the count: tie-break order, receipts, quotas and
surplus transfers.'''
