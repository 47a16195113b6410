# Order queue: store backends, retry scheduling, dispatch and the polling worker
