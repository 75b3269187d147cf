"""
Allocation operations.

Every operation takes a RequestContext first and works on the models in
netalloc.models; writes touching more than one row go through
netalloc.batch.commit_batch().
"""
