"""
A very simple profiling class.  Define some timers and methods
to start and stop them.  Nesting of timers is tracked so we can
pretty print the profiling information.

# define a timer collection
tc = profile.TimerCollection()

# create a timer object
a = tc.timer("my timer")

# start it
a.begin()

# end it
a.end()

The collection keeps the timers in the order they were created,
together with the depth of nesting at the time they were started.
"""

import time


class TimerCollection(object):

    def __init__(self):
        """
        Initialize the collection of timers
        """
        self.timers = []

    def timer(self, name):
        """
        Create a timer with the given name.  If one with that name
        already exists, then we return that timer.

        Parameters
        ----------
        name : str
            Name of the timer

        Returns
        -------
        out : Timer object
            A timer object corresponding to the name.
        """

        # check if any existing timer has this name, if so, return that
        # object
        for t in self.timers:
            if t.name == name:
                return t

        # find out how nested we are.  The stack_count is the number of
        # timers that are running at the moment this one is created
        stack_count = 0
        for t in self.timers:
            if t.is_running:
                stack_count += 1

        t = Timer(name, stack_count=stack_count)
        self.timers.append(t)

        return t

    def report(self):
        """
        Generate a timing summary report
        """

        spacing = '   '
        for t in self.timers:
            print(t.stack_count*spacing + t.name + ': ', t.elapsed_time)


class Timer(object):

    def __init__(self, name, stack_count=0):
        """
        Initialize a timer with the given name.

        Parameters
        ----------
        name : str
            The name of the timer
        stack_count : int, optional
            The depth of the timer (i.e. how many timers this is nested
            in).  This is used for printing purposes.
        """
        self.name = name
        self.stack_count = stack_count
        self.is_running = False

        self.start_time = 0
        self.elapsed_time = 0

    def begin(self):
        """
        Start timing
        """
        self.start_time = time.time()
        self.is_running = True

    def end(self):
        """
        Stop timing.  This does not destroy the timer, it simply
        stops it from counting time.
        """
        elapsed_time = time.time() - self.start_time
        self.elapsed_time += elapsed_time
        self.is_running = False
